"""
Billing modules.

Each module packages the domain models, ORM models, selectors, workflows,
configuration and service for one business area.  Modules may import
from ``billing_kernel`` and ``billing_engines``; neither may import
from here.
"""
