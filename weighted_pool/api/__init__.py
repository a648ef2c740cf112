"""Quote API for weighted pools."""
