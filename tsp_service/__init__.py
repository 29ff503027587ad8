"""
tsp_service — everything around the colony: configuration, the distance
matrix file, console reporting and the run service.

Modules are imported directly (tsp_service.service, tsp_service.shared.models,
...); this package namespace re-exports nothing so that colony_core can
import the shared models without an import cycle.
"""
