from .competition_event_score import CompetitionEventScore
from .criteria_mapping import CriteriaMapping

__all__ = ['CompetitionEventScore', 'CriteriaMapping']
