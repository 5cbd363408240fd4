# Services package init
"""
Persons API — Services Layer
==============================

What:  Business logic between routes (HTTP) and the database (persistence).

Service Inventory:
    - PersonService: Person CRUD against an AsyncSession
    - WeatherService: Random forecast data from an injected random source
    - MigrationRunner / AlembicMigrator: Startup schema migration with
      capped exponential backoff
"""
