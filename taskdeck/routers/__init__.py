"""Task API routers."""
