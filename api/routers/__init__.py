"""
API Routers - Organized endpoint handlers for the Huddle API.

Each router handles a specific domain:
- grouping: Grouping sessions, auto-grouping, moves, violations and finalization
"""
