# HTTP surface for Factiony
