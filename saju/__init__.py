"""Four-pillar (사주) chart engine."""
