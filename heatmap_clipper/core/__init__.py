"""Pure clip-planning logic: heatmap selection, windows, crop filters, transcripts."""
