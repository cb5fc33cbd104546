"""Services package: durable storage backends and Gemini extraction."""
