"""Binary decoders for the PE headers, section table, exports and imports."""
