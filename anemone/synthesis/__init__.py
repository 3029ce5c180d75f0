"""Reply synthesis, actionability retry and the fabrication guard."""
