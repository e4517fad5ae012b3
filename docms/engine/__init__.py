"""DocMS Engine — runtime context, configuration, logging, errors, health."""
