from gnosis.progress.ledger import (
    LearnerAccount,
    accrue_daily_activity,
    compute_streak,
    default_skill_catalog,
)

__all__ = ["LearnerAccount", "accrue_daily_activity", "compute_streak", "default_skill_catalog"]
