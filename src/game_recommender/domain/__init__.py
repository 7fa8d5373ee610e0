"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Result type, exceptions, events and specifications
- players/: Player accounts and behavioural feature snapshots
- catalog/: Item features and per-item override settings
- recommendations/: Recommendation aggregate, interactions and business rules
- strategies/: Interchangeable recommendation-generation algorithms
"""
