"""
Stalled-project scoring.

Modules:
    models - Criteria, criterion results, analyses, trend and statistics types
    criteria - Criteria loading and one evaluator per criterion
    analyzer - Aggregation, classification, recommendations, confidence, history
    reporter - Batch statistics, trend derivation, extraction statistics
"""
