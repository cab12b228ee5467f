"""
Vendors Module.

Vendor registry, jurisdiction lookup and on-demand risk scoring.
"""

from payables_modules.vendors.models import Vendor, VendorStatus
from payables_modules.vendors.service import VendorService

__all__ = ["Vendor", "VendorService", "VendorStatus"]
