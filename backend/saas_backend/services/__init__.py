"""
Business logic services package.

WHY: Services hold the billing rules between the API routes and the DAOs
(API -> Service -> DAO). The webhook pipeline is:
verify -> decode -> dispatch -> synchronize -> commit -> usage sync.
"""
