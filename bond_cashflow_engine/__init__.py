"""
Bond Cash-Flow Engine

Modules:
- terms: bond terms record + validation
- schedule: period timeline and grace classification
- inflation: inflation indexing of the principal
- cashflows: period-by-period coupon/amortization/flow fold
- discount: discount factors, duration, convexity
- yields: IRR solver (TCEA / TREA)
- consistency: issuer/investor mirror and principal repayment checks
- engine: full valuation pipeline
- views: issuer/investor projections + summaries
- export: delimited-text export and parsing
- service: cached, per-bond flow service
- portfolio: parallel batch valuation
- config, errors, utils: shared knobs, exception taxonomy, rate/date helpers
"""
