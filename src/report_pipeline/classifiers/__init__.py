from .report_classifier import (
    ReportClassifier,
    LabelScores,
    heuristic_score,
    score_labels,
    best_label,
)
