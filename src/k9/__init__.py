"""k9: run, watch and create JRubyArt sketches."""

__version__ = "2.0.0"
