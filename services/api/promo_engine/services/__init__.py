"""Business logic services.

- rule_expression: tokenizer/parser/evaluator for offer rule expressions
- offer_model: frozen evaluation types (Offer, OfferItem, OfferContext, ...)
- offer_processor: qualify -> calculate -> select -> apply (pure, clock injected)
- offer_processing: application service wiring the processor to the store

Services should be deterministic when possible and accept dependencies explicitly.
"""
