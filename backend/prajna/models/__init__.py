from prajna.models.exam import Exam, ExamStatus
from prajna.models.credit import Credit

__all__ = ["Exam", "ExamStatus", "Credit"]
