"""SmartSentry — resilient personal-safety API client and backend."""
