"""
Business logic services for the Intake Desk.

Contains all business logic separated from the API layer: criteria
evaluation, workflow rules, template rendering, outreach planning and
audit logging. Import from the submodules directly.
"""
