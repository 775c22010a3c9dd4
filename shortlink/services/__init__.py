"""
Services module for business logic separation.

This module contains service classes that encapsulate business logic,
keeping it separate from API endpoints and storage backends:
- CodeAllocator: short code assignment
- URLShorteningService: link lifecycle
- RedirectService: cache-aside resolution
- ClickRecorder / AnalyticsDispatcher: click analytics
- StatsService: reports
"""
