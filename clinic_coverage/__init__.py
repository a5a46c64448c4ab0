"""
Clinic Coverage Engine
======================

Insurance coverage calculation for clinic billing.

Given a billed service amount and a patient's stack of active insurance
policies, this package works out how much each policy pays, in priority
order, and what the patient owes once every policy has been applied.
"""

__version__ = "0.1.0"
__author__ = "Clinic Coverage"
