"""Daily reminder scheduling and delivery."""
