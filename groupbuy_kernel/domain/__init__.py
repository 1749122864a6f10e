"""Pure domain helpers: currencies, money arithmetic, clock, workflows."""
