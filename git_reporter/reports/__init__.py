"""Report building: activity aggregation, render context, and history."""
