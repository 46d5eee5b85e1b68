"""SQL value representation, conversions and identifier types."""