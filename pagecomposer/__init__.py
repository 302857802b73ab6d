"""Static page composer built on `composekit`.

Common entrypoints:

- `pagecomposer.cli`: `compose`, `list-units` and `translate` commands
- `pagecomposer.app.compose`: config loading, routing and one composition per request
- `pagecomposer.units`: built-in units (`pages.static`, `modules.*`)
"""
