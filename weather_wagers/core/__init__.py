"""Pure building blocks for the Weather Wagers line engine.

- ``odds_math``     — normal-model pricing, vig, American odds, payouts
- ``market_config`` — board parameters and the default city list
- ``bet_terms``     — bet/outcome enums and the typed terms each line is judged on
- ``weather_data``  — forecast, observation and geocode value objects

Nothing in this package imports from ``weather_wagers.services`` or
``weather_wagers.models``.  All modules are side-effect-free.
"""
