"""
SkillSwap — A Peer Skill-Exchange Community Service
=====================================================
Members post help requests, offer help, chat, earn karma for completed
help, collect badges and appear on a leaderboard.

Package layout::

    skillswap/
    ├── __main__.py        # python -m skillswap (serve, init-db, dispatch-outbox)
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Defaults + text helpers
    ├── errors.py          # Domain exceptions (mapped to HTTP in api.main)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   └── models.py      # All ORM models
    ├── engine/
    │   └── badges.py      # Badge catalog + pure eligibility evaluator
    ├── services/
    │   ├── outbox.py               # Side-effect outbox + dispatcher
    │   ├── notification_service.py # Notification fan-out + inbox
    │   ├── badge_service.py        # Stats snapshot + badge awarding
    │   ├── karma_service.py        # Atomic, idempotent karma ledger
    │   ├── endorsement_service.py  # Skill endorsements + guru badge
    │   ├── chat_service.py         # Deterministic chat threads + messages
    │   ├── request_service.py      # Request / offer lifecycle
    │   ├── user_service.py         # Profiles, skills, links, leaderboard
    │   ├── testimonial_service.py  # Receiver-approved testimonials
    │   └── ai_service.py           # AI writing suggestions (httpx)
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, JWT identity dependencies
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
