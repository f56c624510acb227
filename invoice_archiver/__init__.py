"""Archive forwarded invoice mail from Outlook into Paperless-ngx as named PDFs."""
