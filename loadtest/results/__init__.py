"""Result aggregation, export and charts."""
