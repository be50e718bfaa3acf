"""Application services for relctl.

Services implement the release logic, coordinating between the domain
layer (core/) and infrastructure (git/, platform/).
"""
