from dotenv import load_dotenv
from likes_service.main import run

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    run()
