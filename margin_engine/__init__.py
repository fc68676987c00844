"""Margin and risk-valuation core for a leveraged-trading protocol.

Subpackages:
- `margin_engine.core.position`: valuation, liquidation, validation and the
  ordered bookkeeping that runs around every position mutation.
- `margin_engine.state`: the accounting state store, ledger keys and canonical
  encoding used for key derivation.
- `margin_engine.config`: YAML risk-parameter loading.
"""
