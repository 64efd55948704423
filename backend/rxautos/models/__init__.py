"""SQLAlchemy models for RX Autos.

All models are imported here so that ``Base.metadata`` knows every table
(``create_all`` in tests, relationship string resolution). If you add a new
model, import it in this file.
"""

from rxautos.models.payment import Payment
from rxautos.models.profile import Profile
from rxautos.models.promotional_campaign import PromotionalCampaign
from rxautos.models.subscription import Subscription
from rxautos.models.trial_period import TrialPeriod
from rxautos.models.vehicle import Vehicle

__all__ = [
    "Payment",
    "Profile",
    "PromotionalCampaign",
    "Subscription",
    "TrialPeriod",
    "Vehicle",
]
