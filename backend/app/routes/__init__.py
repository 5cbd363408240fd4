# Routes package init
"""
Persons API — Routes Package
==============================

Route Inventory:
    - persons.py:  POST   /persons         (create)
                   GET    /persons         (list)
                   PUT    /persons/{id}    (update name/age)
                   DELETE /persons/{id}    (delete)
    - weather.py:  GET    /weatherforecast (random illustrative data)
    - health.py:   GET    /health          (database probe)

Routes are THIN: they handle HTTP concerns and delegate to services.
"""
