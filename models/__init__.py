from .api_key import ApiKey
from .project import Project, ProjectUpvote
from .sponsored_spot import SponsoredSpot
from .payment_receipt import PaymentReceipt
