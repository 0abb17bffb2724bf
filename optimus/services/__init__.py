"""Services Layer: collaborators consumed by the request pipeline."""
