"""SQLAlchemy models"""
from app.models.user import User
from app.models.token import ApiToken
from app.models.project import Project
from app.models.sbom import Sbom, VulnerabilityFinding
from app.models.rate_limit import RateLimitWindow

__all__ = ["User", "ApiToken", "Project", "Sbom", "VulnerabilityFinding", "RateLimitWindow"]
