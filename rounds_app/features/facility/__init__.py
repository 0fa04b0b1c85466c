"""Single-facility feature module."""

from rounds_app.features.facility.context import FacilityContext, build_facility_context

__all__ = ["FacilityContext", "build_facility_context"]
