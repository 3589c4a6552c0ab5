import json
from recipes_api.main import app

def main():
    schema = app.openapi()
    with open("openapi.json", "w", encoding="utf-8") as f:
        json.dump(schema, f, ensure_ascii=False, indent=2)
    print(f"openapi.json written ({len(schema.get('paths', {}))} paths)")

if __name__ == "__main__":
    main()
