"""
Gnosis adaptive learning engine.

Subpackages:
- core: domain records, vocabularies and errors
- adaptive: pattern analysis, prioritization, recommendations, guided sessions
- integrations: collaborator protocols and their implementations
- sync: persistence outbox and delivery worker
- db: SQLAlchemy storage
- progress: learner account, daily analytics and skill catalog
- cli: typer command line
"""

__version__ = "1.0.0"
