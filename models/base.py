from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class ProcessingStatus(str, enum.Enum):
    """Lifecycle status of a person record"""
    IMPORTED = "IMPORTED"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


class RunStatus(str, enum.Enum):
    """Pipeline run status"""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


class StepStatus(str, enum.Enum):
    """Status of one step execution"""
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"
