"""Ticket workflow engine: tickets, milestones and a simulated clock."""

__version__ = "0.1.0"
