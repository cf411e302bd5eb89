"""
Ticketing domain package.

Modules of interest:
- models: tickets, comments, categories, request bodies and store params.
- pagination: page/size bounds and admin filter precedence.
- coordinator: precondition-checked mutations, including the two-step
  comment edit that also touches its ticket.
- queries: cached, policy-scoped listings and single-ticket reads.
"""
