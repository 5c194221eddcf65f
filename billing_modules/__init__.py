"""
Billing Modules - persistence and service facades.

Each module owns one aggregate:

    invoicing       InvoiceService, invoice repositories and ORM models
    time_tracking   TimeEntryService, time entry repositories and ORM model
    project         ProjectBudgetService, project repositories and ORM model

Services load records through repositories, check ownership against an
explicit Principal, call billing_engines, and save the results.
"""
