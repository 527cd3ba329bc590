"""
EV Population Insights.

Load-once, query-many aggregation engine over vehicle registration exports.
"""
