"""CitizenConnect: citizen service requests with role-based triage."""

__version__ = "1.0.0"
